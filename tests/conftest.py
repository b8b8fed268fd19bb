"""
Pytest configuration and shared fixtures.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from apkbuild_lint.apkbuild import APKBUILD


VALID_APKBUILD = """\
# Contributor: Jane Doe <jane@example.org>
# Maintainer: John Doe <john@example.org>
pkgname=hello
pkgver=1.0
pkgrel=0
pkgdesc="Friendly greeter"
url="https://example.org/hello"
arch="all"
license="MIT"
source="https://example.org/$pkgname-$pkgver.tar.gz"
builddir="$srcdir/$pkgname-$pkgver"

build() {
	local flags="-O2"
	CFLAGS="$flags" make
}

check() {
	make check
}

package() {
	make DESTDIR="$pkgdir" install
}

sha512sums="abc123  hello-1.0.tar.gz"
"""


# =============================================================================
# LINT FIXTURES
# =============================================================================

@pytest.fixture
def lint():
    """Run a single rule over source text and return its violations."""
    def run(rule, source):
        apkbuild = APKBUILD.parse(source, "APKBUILD")
        return rule.check(apkbuild)
    return run


@pytest.fixture
def valid_source():
    return VALID_APKBUILD


# =============================================================================
# FILE FIXTURES
# =============================================================================

@pytest.fixture
def aport(tmp_path):
    """Create an aport directory holding an APKBUILD with the given text."""
    def make(source=VALID_APKBUILD, name="hello"):
        directory = tmp_path / name
        directory.mkdir()
        (directory / "APKBUILD").write_text(source, encoding="utf-8")
        return directory
    return make


@pytest.fixture(autouse=True)
def clean_config_env(monkeypatch, tmp_path):
    """Keep user configuration and environment out of the tests."""
    for var in ("APKBUILD_LINT_CONFIG", "APKBUILD_LINT_BUILD_SCRIPT",
                "APKBUILD_LINT_LOG_LEVEL", "APKBUILD_LINT_DISABLE"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)

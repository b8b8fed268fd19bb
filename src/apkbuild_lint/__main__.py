import sys

from apkbuild_lint.cli import main

sys.exit(main())

import sys

from subenum.app import main

sys.exit(main())

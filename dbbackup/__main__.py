import sys

from dbbackup.main import main

sys.exit(main())

import sys

from director.main import main

sys.exit(main())

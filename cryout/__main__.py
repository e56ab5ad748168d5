import sys

from cryout.main import main

sys.exit(main())

import sys

from mcp_time_server.cli import main

sys.exit(main())  # type: ignore[call-arg]

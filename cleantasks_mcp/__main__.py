"""Entry point for `python -m cleantasks_mcp`."""

import os
from cleantasks_mcp.server import mcp

transport = os.environ.get("MCP_TRANSPORT", "stdio")

if transport == "stdio":
    mcp.run()
else:
    port = int(os.environ.get("PORT", "8000"))
    mcp.run(transport=transport, host="0.0.0.0", port=port)

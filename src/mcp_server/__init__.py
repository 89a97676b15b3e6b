SERVER_NAME = "pocketbase-mcp-server"
__version__ = "0.1.0"

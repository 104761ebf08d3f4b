"""Main entry point for memorias service."""
import argparse
import logging
import os
import threading
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
import uvicorn
from src.memorias.interface.api import app, get_memory_service, get_upload_service
from src.memorias.interface.mcp_interface import mcp, interface
from src.memorias.core.config import config


def setup_logging(log_level: str = "info"):
    """Setup logging with rotation, keeping logs for 7 days."""
    log_dir = "logs"
    os.makedirs(log_dir, exist_ok=True)

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Daily rotation, keep 7 days
    file_handler = TimedRotatingFileHandler(
        filename=os.path.join(log_dir, "memorias-service.log"),
        when="midnight",
        interval=1,
        backupCount=7,
        encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    file_handler.setLevel(numeric_level)
    root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(numeric_level)
    root_logger.addHandler(console_handler)

    logging.info(f"Logging configured - Level: {log_level.upper()}, Log directory: {log_dir}")


def initialize_service():
    """Create the storage and upload collaborators before the first request."""
    logging.info("🔧 Pre-initializing Memorias Service...")
    logging.info(f"🔧 Configuration:")
    logging.info(f"   - Birth date: {config.birth_date.isoformat()}")
    logging.info(f"   - Storage backend: {config.storage_backend}")
    if config.storage_backend == "supabase":
        logging.info(f"   - Supabase URL: {config.supabase_url}")
        logging.info(f"   - Bucket: {config.storage_bucket}")
    else:
        logging.info(f"   - Data Directory: {Path(config.data_dir).absolute()}")

    service = get_memory_service()
    get_upload_service()
    # MCP tools share the REST service instance
    interface.service = service

    logging.info("✅ Memorias Service pre-initialization completed!")
    return service


def run_fastapi_server(host: str, port: int, reload: bool, log_level: str):
    """Run the FastAPI server."""
    logging.info(f"🚀 Starting Memorias Service FastAPI on {host}:{port}")
    logging.info(f"📚 API Documentation: http://{host}:{port}/docs")

    uvicorn.run(
        app,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level
    )


def run_mcp_server(host: str, port: int, path: str = "/mcp"):
    """Run the FastMCP server with streamhttp transport."""
    logging.info(f"🔧 Starting Memorias Service MCP Server on {host}:{port}{path}")
    logging.info(f"🔗 MCP Endpoint: http://{host}:{port}{path}")

    mcp.run(
        transport="http",
        host=host,
        port=port,
        path=path,
        log_level="info"
    )


def run_mcp_stdio():
    """Run MCP server with STDIO transport (for MCP clients like Claude Desktop)."""
    initialize_service()
    logging.info("🔧 Starting Memorias Service MCP Server with STDIO transport")
    mcp.run(transport="stdio")


def main():
    """Main entry point for the memorias service."""
    parser = argparse.ArgumentParser(description="Memorias Service")
    parser.add_argument("--host", default=config.host, help="Host to bind to")
    parser.add_argument("--port", type=int, default=config.port, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    parser.add_argument("--log-level", default="info", help="Log level")

    # MCP server options
    parser.add_argument("--mode", choices=["fastapi", "mcp", "both", "stdio"], default="fastapi",
                        help="Server mode: fastapi (REST API), mcp (MCP server), both, or stdio (MCP over STDIO)")
    parser.add_argument("--mcp-port", type=int, default=None, help="Port for MCP server")
    parser.add_argument("--mcp-path", default="/mcp", help="Path for MCP endpoint")

    args = parser.parse_args()

    setup_logging(args.log_level)
    logging.info("Memorias Service starting up...")

    if args.mode == "stdio":
        run_mcp_stdio()
        return

    if not args.reload:
        initialize_service()
    else:
        logging.info("⚠️  Skipping pre-initialization in reload mode")

    if args.mode == "fastapi":
        run_fastapi_server(args.host, args.port, args.reload, args.log_level)

    elif args.mode == "mcp":
        run_mcp_server(args.host, args.mcp_port or args.port, args.mcp_path)

    elif args.mode == "both":
        mcp_port = args.mcp_port or args.port + 1
        logging.info("🚀 Starting both FastAPI and MCP servers...")
        logging.info(f"🔗 MCP Endpoint: http://{args.host}:{mcp_port}{args.mcp_path}")

        # FastAPI in a daemon thread, MCP in the main thread
        fastapi_thread = threading.Thread(
            target=run_fastapi_server,
            args=(args.host, args.port, False, args.log_level),
            daemon=True
        )
        fastapi_thread.start()

        try:
            run_mcp_server(args.host, mcp_port, args.mcp_path)
        except KeyboardInterrupt:
            logging.info("\n🛑 Shutting down servers...")


if __name__ == "__main__":
    main()

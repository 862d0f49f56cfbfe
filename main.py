"""Main entry point for the Cashé NLP bot application."""

import sys
import os

# For Vercel deployment, just export the FastAPI app
if os.getenv("VERCEL"):
    from api_server import app
    __all__ = ["app"]
else:
    import argparse
    from cashe.utils.config import settings
    from cashe.utils.logger import get_logger
    logger = get_logger("main")


def run_cli():
    """Run the local chat REPL."""
    try:
        from cli_app import main as cli_main
        logger.info("Starting Cashé chat CLI")
        cli_main()
    except Exception as e:
        logger.error(f"Error running CLI: {e}")
        print(f"Error: {e}")
        sys.exit(1)


def run_api(disable_reload=False):
    """Run the API server."""
    try:
        import uvicorn
        import threading

        logger.info(f"Starting {settings.app_name} API server")
        print(f"🚀 Starting {settings.app_name} API Server")
        print(f"📍 Running on: http://{settings.api_host}:{settings.api_port}")
        print(f"📚 API Documentation: http://{settings.api_host}:{settings.api_port}/docs")
        print(f"🔄 Debug mode: {settings.debug}")

        # Reload only works from the main thread
        is_main_thread = threading.current_thread() is threading.main_thread()
        use_reload = settings.api_reload and not disable_reload and is_main_thread

        if not is_main_thread:
            print("🔄 Hot reload disabled (running in background thread)")

        print()

        uvicorn.run(
            "api_server:app",  # Import string for reload support
            host=settings.api_host,
            port=settings.api_port,
            reload=use_reload,
            log_level=settings.log_level.lower()
        )

    except Exception as e:
        logger.error(f"Error running API server: {e}")
        print(f"Error: {e}")
        sys.exit(1)


def check_environment():
    """Report the configuration the app will run with."""
    try:
        if settings.llm_configured:
            print(f"✅ LLM fallback configured ({settings.llm_model})")
        else:
            print("⚠️  GROQ_API_KEY not set - running with regex parsing only")

        if settings.storage_backend == "mongodb":
            print(f"🗄️  Storage: MongoDB ({settings.mongodb_database})")
        else:
            print(f"🧠 Storage: {settings.storage_backend}")
        print()
        return True

    except Exception as e:
        logger.error(f"Environment check failed: {e}")
        print(f"❌ Environment configuration error: {e}")
        print("Please check your .env file and configuration.")
        return False


def main():
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description=f"{settings.app_name} - NLP command interpreter for Cashé chat bots",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py              # Chat with the bot locally (default)
  python main.py --cli        # Run the chat CLI explicitly
  python main.py --api        # Run the API server
  python main.py --check      # Check environment configuration
        """
    )

    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--cli",
        action="store_true",
        help="Run the local chat CLI against in-memory demo data (default)"
    )
    group.add_argument(
        "--api",
        action="store_true",
        help="Run the FastAPI server"
    )
    group.add_argument(
        "--check",
        action="store_true",
        help="Check environment configuration"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"{settings.app_name} v{settings.app_version}"
    )

    args = parser.parse_args()

    print("=" * 60)
    print(f"  {settings.app_name} v{settings.app_version}")
    print("  Hybrid NLP bot for personal finances")
    print("=" * 60)
    print()

    if not check_environment():
        sys.exit(1)

    if args.check:
        print("✅ Environment configuration check passed!")
        print(f"📍 API will run on: http://{settings.api_host}:{settings.api_port}")
        print(f"💰 Default currency: {settings.default_currency}")
        print(f"🕐 Timezone: {settings.timezone}")
        return

    if args.api:
        run_api()
    else:
        run_cli()


if __name__ == "__main__":
    if not os.getenv("VERCEL"):
        try:
            main()
        except KeyboardInterrupt:
            print("\n👋 Application terminated by user")
            sys.exit(0)
        except Exception as e:
            logger.error(f"Fatal error: {e}")
            print(f"\n💥 Fatal error: {e}")
            sys.exit(1)

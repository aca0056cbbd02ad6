"""Academic Notice Board: main entry point.

Usage:
    python main.py                   # serve the API
    python main.py --replay-failed   # re-ingest queued emails, then exit
"""
import sys

from noticeboard.config import load_config
from noticeboard.ingest import replay_failed_emails
from noticeboard.store import JsonFileStore
from noticeboard.utils import setup_logging


def main():
    cfg = load_config()
    logger = setup_logging(cfg.log_level)
    store = JsonFileStore(cfg.store_path)
    logger.info(f"Notification store at: {cfg.store_path}")

    if "--replay-failed" in sys.argv:
        created = replay_failed_emails(
            cfg.failed_emails_dir,
            store,
            min_age_seconds=0,
            logs_dir=cfg.logs_dir,
            default_days=cfg.default_deadline_days,
            day_first=cfg.date_day_first,
        )
        logger.info(f"Replayed {len(created)} queued email(s)")
        return

    import uvicorn
    from noticeboard.web import create_app

    app = create_app(store, cfg)
    logger.info(f"Notice board API starting at http://localhost:{cfg.web_port}")
    if cfg.webhook_secret:
        logger.info("Email webhook requires X-Webhook-Secret")
    try:
        uvicorn.run(app, host=cfg.web_host, port=cfg.web_port, log_level="warning")
    except KeyboardInterrupt:
        logger.info("Notice board shutting down. Goodbye!")


if __name__ == "__main__":
    main()

"""
Booking Expiry Runner
Run on demand: python run_expiry_job.py
"""

import logging
import sys

from app.database import SessionLocal
from app.domain.bookings.expiry import expire_stale_bookings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    logger.info("🚀 Running booking expiry...")
    db = SessionLocal()
    try:
        summary = expire_stale_bookings(db)
        logger.info(
            f"✅ Cancelled {summary['expired_count']} bookings, "
            f"sent {summary['notifications_sent']} notifications"
        )
    except Exception as e:
        logger.error(f"❌ Booking expiry failed: {e}")
        sys.exit(1)
    finally:
        db.close()

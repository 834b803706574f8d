import logging
from contextlib import contextmanager
from linkblocks.extensions import db

logger = logging.getLogger(__name__)


@contextmanager
def transactional():
    """
    One storage-level transaction per structural mutation.
    Commits on success; any exception rolls the whole unit back and re-raises.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.debug("Transaction rolled back", exc_info=True)
        raise

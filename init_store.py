"""Prepara el almacén de tabla única.

Crea la tabla ``records`` si no existe e informa cuántos registros contiene.
Uso: ``python init_store.py``. Sale con 0 si el almacén quedó listo y 1 si
no se pudo conectar.
"""

import logging
import sys
from sqlalchemy.exc import SQLAlchemyError
from config import get_settings
from database import init_db, count_items
from models import Record

logger = logging.getLogger(__name__)

def main() -> int:
    settings = get_settings()
    logger.info("Checking table %s on %s", Record.__tablename__, settings.database_url.split(':', 1)[0])
    try:
        init_db()
        total = count_items()
    except SQLAlchemyError as e:
        logger.error("Store setup failed: %s", e)
        return 1
    logger.info("Table %s ready, %d record(s)", Record.__tablename__, total)
    return 0

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(main())

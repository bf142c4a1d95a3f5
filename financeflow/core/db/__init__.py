# Export base classes only to avoid circular imports
# Models should be imported from their respective modules, not from here

from financeflow.core.db.base import Base, BaseModel

__all__ = ["Base", "BaseModel", "import_models"]


def import_models() -> None:
    """Import every ORM module so Base.metadata knows all tables."""
    from financeflow.modules.users import models as _users  # noqa: F401
    from financeflow.modules.ledger import models as _ledger  # noqa: F401
    from financeflow.modules.transactions import models as _transactions  # noqa: F401
    from financeflow.modules.sync import models as _sync  # noqa: F401

# cnapp/
# ├─ bootstrap.py       # composition root: registry, database, service wiring
# ├─ config/            # Settings (pydantic-settings)
# ├─ core/logging/      # dictConfig builder, formatters, filters, handlers
# ├─ database/          # storage contracts, provider registry, SQLAlchemy providers
# ├─ exceptions/        # classified errors + storage fault mapping
# ├─ models/            # table definitions
# ├─ repositories/      # SQLUserRepository
# ├─ services/          # User, UserRepository protocol, UserService
# ├─ utils/             # locks, project metadata
# └─ validators/        # settings normalizers

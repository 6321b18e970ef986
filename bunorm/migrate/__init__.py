"""Database migrations: registration, SQL file discovery, bookkeeping and running them in groups."""
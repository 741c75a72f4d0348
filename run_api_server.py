"""
Run the credits service locally with auto-reload.

Point DATABASE_URL at a database created with ``python -m app.scripts.init_db``
or migrated with ``alembic upgrade head``.
"""

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="127.0.0.1",
        port=9000,
        reload=True
    )

# wipflow/config.py
import os


class Settings:
    """
    Very simple settings holder.
    Reads everything from environment variables, with defaults that
    give a local sqlite file and the stock downtime accounting.
    """

    def __init__(self) -> None:
        self.database_url: str = os.getenv("DATABASE_URL", "sqlite:///./wipflow.db")
        self.log_level: str = os.getenv("WIPFLOW_LOG_LEVEL", "INFO").upper()
        self.sql_echo: bool = os.getenv("WIPFLOW_SQL_ECHO", "false").lower() == "true"
        self.seed_demo: bool = os.getenv("WIPFLOW_SEED_DEMO", "true").lower() == "true"

        # Minutes added to a task's downtime counter each time downtime ends.
        self.downtime_increment_minutes: int = int(
            os.getenv("WIPFLOW_DOWNTIME_INCREMENT_MIN", "10")
        )


settings = Settings()

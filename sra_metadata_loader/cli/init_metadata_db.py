from sra_metadata_loader.config import get_config
from sra_metadata_loader.logging.logger import log_debug, log_info, run_logger
from sra_metadata_loader.logging.schema import DebugCategory
from sra_metadata_loader.store.db import init_metadata_db


def main() -> None:
    config = get_config()

    with run_logger(run_name="init_metadata_db", config=config):
        log_debug(f"Config: {config.model_dump_json(indent=2)}", debug_category=DebugCategory.CONFIG)
        db_path = init_metadata_db(config)
        log_info("metadata database initialized", file=str(db_path))


if __name__ == "__main__":
    main()

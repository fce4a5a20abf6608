"""
Entry point for running sharelog_parquet as a module.

Usage:
    python -m sharelog_parquet convert /path/to/sharelog.bin --output ./shares.parquet
    python -m sharelog_parquet validate /path/to/sharelog.bin
    python -m sharelog_parquet inspect ./shares.parquet
    python -m sharelog_parquet info
"""

from .cli import main

if __name__ == "__main__":
    main()

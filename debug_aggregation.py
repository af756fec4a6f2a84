#!/usr/bin/env python3
"""
debug_aggregation - Tool for inspecting what each stage of a MongoDB aggregation pipeline does to a
                    set of documents.

Usage:
    python3 debug_aggregation.py --help
    python3 debug_aggregation.py records.json pipeline.json --show-query
    python3 debug_aggregation.py records.json pipeline.json --mode stages

Environment Variables:
    MONGODB_HOST - MongoDB host (optional, default: localhost)
    MONGODB_PORT - MongoDB port (optional, default: 27017)
    MONGODB_USERNAME - MongoDB username (optional)
    MONGODB_PASSWORD - MongoDB password (optional)

The script will:
1. Load the records and the pipeline from the given (Extended) JSON files
2. Insert the records into a temporary database on the MongoDB server
3. Run the pipeline stage by stage (or only once, in "exec" mode) and print the results
4. Drop the temporary database
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

# Third-party imports
from bson import json_util
from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorClient

# Local imports
from aggregation_debugger import (AggregationDebugger, DebuggerError, load_aggregation_pipeline,
                                  load_records)
from aggregation_debugger.config import load_mongo_params

# Load environment variables from .env file
load_dotenv()

# Setup the global logger
logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Setup logging configuration"""
    logging.basicConfig(level=getattr(logging, level.upper()),
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                        datefmt='%Y-%m-%d %H:%M:%S')


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse the command line arguments"""
    parser = argparse.ArgumentParser(
        description="Run a MongoDB aggregation pipeline stage by stage on a set of documents")
    parser.add_argument("records", help="JSON file with the document(s) to aggregate over")
    parser.add_argument("pipeline", help="JSON file with the aggregation pipeline")
    parser.add_argument("--mode",
                        choices=['log', 'stages', 'exec'],
                        default='log',
                        help="log: print each stage's results, stages: output every stage's "
                        "query and results as JSON, exec: output only the final results as JSON")
    parser.add_argument("--show-query",
                        action='store_true',
                        help="In log mode, also print the query run for each stage")
    parser.add_argument("--host", help="MongoDB host (overrides config and environment)")
    parser.add_argument("--port", type=int, help="MongoDB port (overrides config and environment)")
    parser.add_argument("--username",
                        help="MongoDB username (overrides config and environment). The password "
                        "is read from the MONGODB_PASSWORD environment variable")
    parser.add_argument("--config", help="Path to the TOML configuration file")
    parser.add_argument("--log-level",
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='WARNING',
                        help="Set the logging level")

    return parser.parse_args(argv)


async def run_debugger(args: argparse.Namespace) -> None:
    """
    Load the inputs and run the debugger in the requested mode
    """
    mongo_params = load_mongo_params(args.config)
    for key in ('host', 'port', 'username'):
        value = getattr(args, key)
        if value is not None:
            mongo_params[key] = value

    records = load_records(args.records)
    pipeline = load_aggregation_pipeline(args.pipeline)

    debugger = AggregationDebugger(mongo_params, client_factory=AsyncIOMotorClient)

    if args.mode == 'log':
        await debugger.log(records, pipeline, show_query=args.show_query)
    elif args.mode == 'stages':
        output = await debugger.stages(records, pipeline)
        print(json_util.dumps(output, indent=2))
    else:
        output = await debugger.exec(records, pipeline)
        print(json_util.dumps(output, indent=2))


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function
    """
    args = parse_args(argv)

    # Setup logging with specified level
    setup_logging(args.log_level)

    try:
        asyncio.run(run_debugger(args))
    except (DebuggerError, ValueError) as e:
        logger.error("Aggregation debugging failed: %s", e)
        if getattr(e, 'cleanup_error', None) is not None:
            logger.error("Additionally, cleanup failed: %s", e.cleanup_error)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

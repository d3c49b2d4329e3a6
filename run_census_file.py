"""
Runner that processes one census file without the API and writes a JSON report.

Usage:
  PYTHONPATH=. python run_census_file.py \
    --input /path/to/plantilla.xlsx \
    --output results/plantilla_report.json
"""

import argparse
import json
import logging
import mimetypes
from pathlib import Path

from census_intake.config import get_config
from census_intake.pipeline import CensusIngestionPipeline


def process_file(input_path: Path, output_path: Path, include_grid: bool) -> dict:
    config = get_config()
    pipeline = CensusIngestionPipeline(config)

    media_type, _ = mimetypes.guess_type(input_path.name)
    processed = pipeline.process_file(input_path.name, input_path.read_bytes(), media_type)
    report = processed.to_dict(include_grid=include_grid)

    output_path.parent.mkdir(exist_ok=True, parents=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(report, f, ensure_ascii=False, indent=2, default=str)

    print(f"Processed {input_path.name}: {processed.format_assessment.primary_format} "
          f"(confidence {processed.format_assessment.confidence:.2f})")
    for table in processed.structure.tables:
        print(f"  - {table.name}: {table.row_count} rows, {len(table.columns)} columns, purpose {table.purpose.value}")
    critical = [q for q in processed.questions if q.is_critical]
    print(f"Questions: {len(processed.questions)} ({len(critical)} critical)")
    for q in critical:
        print(f"  ! {q.prompt}")
    print(f"Report written to {output_path}")
    return report


def main():
    parser = argparse.ArgumentParser(description="Process a census file and write a JSON report.")
    parser.add_argument("--input", required=True, help="Path to the census file")
    parser.add_argument("--output", default="results/census_report.json", help="Path of the JSON report")
    parser.add_argument("--include-grid", action="store_true", help="Include the extracted raw grid in the report")
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, get_config().log_level.upper(), logging.INFO))

    input_path = Path(args.input)
    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    process_file(input_path, Path(args.output), args.include_grid)


if __name__ == "__main__":
    main()

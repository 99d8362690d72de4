import argparse
import json
import sys

import uvicorn

from nebresult.api.app import app
from nebresult.config.settings import settings
from nebresult.services.report_service import ReportService, ReportServiceError
from nebresult.services.storage import Storage
from nebresult.utils.date_converter import self_check


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nebresult", description="Print NEB gradesheets as JSON")
    parser.add_argument("--db", default=settings.db_path, help="sqlite database path")
    sub = parser.add_subparsers(dest="command", required=True)

    one = sub.add_parser("gradesheet", help="gradesheet of one student for one exam")
    one.add_argument("--student", type=int, required=True)
    one.add_argument("--exam", type=int, required=True)

    batch = sub.add_parser("class", help="gradesheets of every student in a class")
    batch.add_argument("--level", type=int, required=True)
    batch.add_argument("--exam", type=int, required=True)
    batch.add_argument("--faculty", default=None)
    batch.add_argument("--year", default=None)

    api = sub.add_parser("serve", help="serve the JSON API")
    api.add_argument("--host", default=settings.api_host)
    api.add_argument("--port", type=int, default=settings.api_port)
    return parser


def serve(db_path: str, host: str, port: int) -> int:
    app.state.db_path = db_path
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    self_check()

    if args.command == "serve":
        return serve(args.db, args.host, args.port)

    storage = Storage(args.db)
    service = ReportService(storage)
    try:
        if args.command == "gradesheet":
            payload = service.student_gradesheet(args.student, args.exam).to_dict()
        else:
            payload = [
                report.to_dict()
                for report in service.class_gradesheets(args.level, args.exam, faculty=args.faculty, year=args.year)
            ]
    except ReportServiceError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        storage.close()

    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())

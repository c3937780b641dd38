# main.py

#============================================================#
#                       Keel-PM Integrity                    #
#============================================================#
# Purpose     : Maintenance entry point for the project      #
#               integrity engine: recompute metrics, audit   #
#               drift, cascade deletes, print timelines      #
#============================================================#

import argparse
import logging
import os
import sys

import db
from utils.cascade import cascade_project_deletion
from utils.consistency import audit_project
from utils.permissions import PermissionContext
from utils.progress import recalculate_metrics
from utils.timeline import timeline_df_for_project

logger = logging.getLogger("main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Project integrity maintenance")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="create tables")
    for name, help_text in (
        ("recalc", "recompute metrics and milestone progress"),
        ("audit", "detect and repair task/team drift"),
        ("cascade", "remove a deleted project's tasks and team references"),
        ("timeline", "print milestones and tasks by due date"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("project_id")
        if name == "audit":
            p.add_argument("--actor", help="user id recorded on repair activities")
    return parser


def run(args, store) -> int:
    if args.command == "init-db":
        db.init_db()
        print("tables created")
        return 0
    if args.command == "recalc":
        metrics = recalculate_metrics(store, args.project_id)
        print(metrics.model_dump_json(indent=2))
        return 0
    if args.command == "audit":
        context = PermissionContext(user_id=args.actor) if args.actor else None
        report = audit_project(store, args.project_id, context)
        for line in report.fixed:
            print(f"fixed: {line}")
        for line in report.issues:
            print(f"issue: {line}")
        return 0 if report.is_consistent else 1
    if args.command == "cascade":
        result = cascade_project_deletion(store, args.project_id)
        print(f"{result.deleted_tasks} tasks deleted, {result.updated_teams} teams updated")
        return 0
    if args.command == "timeline":
        df = timeline_df_for_project(store, args.project_id)
        print(df.to_string(index=False) if not df.empty else "nothing scheduled")
        return 0
    return 2


def main(argv=None) -> int:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = build_parser().parse_args(argv)
    try:
        return run(args, db.SqlStore())
    except db.EntityNotFound as exc:
        logger.error("%s", exc)
        return 1
    except db.StoreError:
        logger.exception("store failure")
        return 1


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations
import argparse
import logging
import sys

from workforce_dashboard.models import SourceConfig
from workforce_sync.services.sync_runner import run_sync


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Запустити синхронізацію джерел даних')
    parser.add_argument('--source', help='ID джерела. За замовчуванням усі активні джерела.')
    parser.add_argument('--include-disabled', action='store_true',
                        help='Разом з активними запускати й джерела з вимкненою синхронізацією.')
    parser.add_argument('--verbose', action='store_true', help='Детальний лог (DEBUG).')
    return parser.parse_args(argv)


def select_sources(source_id: str | None, include_disabled: bool = False) -> list[str]:
    if source_id:
        return [source_id]
    query = SourceConfig.query.filter_by(status='active')
    if not include_disabled:
        query = query.filter_by(sync_enabled=True)
    return [source.id for source in query.order_by(SourceConfig.name).all()]


def sync_sources(source_ids: list[str]) -> int:
    failures = 0
    for source_id in source_ids:
        result = run_sync(source_id, trigger='cli')
        if result is None:
            print(f'{source_id}: not found')
            failures += 1
            continue
        print(
            f"{result['source_name']}: {result['status']} "
            f"({result['records_imported']}/{result['records_total']} imported, "
            f"{result['records_failed']} failed)"
        )
        if result['status'] == 'failed':
            failures += 1
    return failures


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    from workforce_dashboard import create_app

    app = create_app({'ENABLE_SCHEDULER': False})
    with app.app_context():
        source_ids = select_sources(args.source, args.include_disabled)
        if not source_ids:
            print('Немає активних джерел')
            return 0
        return 1 if sync_sources(source_ids) else 0


if __name__ == '__main__':
    sys.exit(main())

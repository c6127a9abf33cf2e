#!/usr/bin/env python3
"""
Admin console for a DataSprint document store.

This script helps administrators by:
1. Listing challenges with their submission counts
2. Printing overview numbers (users, active challenges, submissions)
3. Exporting submissions to CSV
4. Providing interactive selection of challenges to delete
"""

import argparse
import logging
import sys
from typing import Callable, List, Optional

from datasprint import ChallengeAdmin, DocumentStoreAdapter, get_document_store
from datasprint.config import StoreSettings
from datasprint.exceptions import DatasprintError
from datasprint.models import Challenge


class AdminConsole:
    """Command line front end for ChallengeAdmin."""

    def __init__(self, adapter: Optional[DocumentStoreAdapter] = None, dry_run: bool = False,
                 input_fn: Callable[[str], str] = input):
        """
        Args:
            adapter: Store adapter; built from the environment when omitted
            dry_run: If True, only list what would be deleted
            input_fn: Prompt function (replaced in tests)
        """
        self.adapter = adapter or DocumentStoreAdapter(get_document_store(StoreSettings.from_env()))
        self.admin = ChallengeAdmin(self.adapter)
        self.dry_run = dry_run
        self.input_fn = input_fn

    def list_challenges(self) -> List[Challenge]:
        challenges = self.adapter.list_challenges()
        if not challenges:
            print("No challenges found.")
            return challenges
        print(f"Found {len(challenges)} challenge(s):")
        print()
        for i, challenge in enumerate(challenges, 1):
            deadline = challenge.deadline.strftime('%Y-%m-%d %H:%M') if challenge.deadline else 'None'
            print(f"{i}. {challenge.title} ({challenge.id})")
            print(f"   Difficulty: {challenge.difficulty}, {challenge.points} points, status {challenge.status}")
            print(f"   Deadline: {deadline}")
            print(f"   Submissions: {challenge.submission_count}")
            print()
        return challenges

    def show_stats(self) -> None:
        stats = self.admin.overview_stats()
        print(f"Users:             {stats.total_users}")
        print(f"Active challenges: {stats.active_challenges}")
        print(f"Submissions:       {stats.total_submissions}")

    def export(self, output: str, challenge_id: Optional[str] = None) -> None:
        self.admin.export_submissions(output, challenge_id=challenge_id)
        print(f"Exported submissions to {output}")

    def interactive_delete(self) -> int:
        """Prompt for challenges to delete; returns the number deleted."""
        challenges = self.list_challenges()
        if not challenges:
            return 0

        print("Challenges to delete (enter comma-separated numbers, or 'all' for all, or 'none'):")
        selection = self.input_fn(f"  [1-{len(challenges)}]: ").strip()
        selected = self._parse_selection(selection, len(challenges))
        if not selected:
            print("\nNo challenges selected for deletion.")
            return 0

        print(f"\nChallenges to delete: {len(selected)}")
        for idx in selected:
            print(f"  - {challenges[idx].title} ({challenges[idx].id})")
        print("Submissions for these challenges are kept.")

        if self.dry_run:
            print("DRY RUN MODE - No challenges will actually be deleted")
            return 0
        confirmation = self.input_fn("\nType 'DELETE' to confirm: ").strip()
        if confirmation != 'DELETE':
            print("Deletion cancelled.")
            return 0

        deleted = 0
        for idx in selected:
            if self.admin.delete_challenge(challenges[idx].id):
                deleted += 1
        print(f"Deleted {deleted} of {len(selected)} challenge(s)")
        return deleted

    def _parse_selection(self, selection: str, max_count: int) -> List[int]:
        """
        Parse user selection input.

        Accepts 'all', 'none', single numbers and ranges like "2-4", comma
        separated. Returns sorted, de-duplicated zero-based indices within range.
        """
        if selection.lower() == 'none' or not selection:
            return []
        if selection.lower() == 'all':
            return list(range(max_count))

        indices = []
        try:
            for part in selection.split(','):
                part = part.strip()
                if '-' in part:
                    start, end = part.split('-')
                    indices.extend(range(int(start.strip()) - 1, int(end.strip())))
                else:
                    indices.append(int(part) - 1)
        except ValueError:
            print(f"Invalid selection: {selection}")
            return []
        return sorted({i for i in indices if 0 <= i < max_count})


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description='Manage DataSprint challenges and submissions',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List challenges in the configured store
  DATASPRINT_STORE=dynamodb python datasprint_admin.py list

  # Export all submissions
  python datasprint_admin.py export submissions.csv

  # Pick challenges to delete without deleting anything
  python datasprint_admin.py delete --dry-run
        """
    )
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('list', help='List challenges')
    subparsers.add_parser('stats', help='Show overview numbers')

    export_parser = subparsers.add_parser('export', help='Export submissions to CSV')
    export_parser.add_argument('output', help='Destination CSV file')
    export_parser.add_argument('--challenge', help='Only export submissions for this challenge id')

    delete_parser = subparsers.add_parser('delete', help='Interactively delete challenges')
    delete_parser.add_argument('--dry-run', action='store_true', help='List challenges without deleting them')

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        console = AdminConsole(dry_run=getattr(args, 'dry_run', False))
        if args.command == 'list':
            console.list_challenges()
        elif args.command == 'stats':
            console.show_stats()
        elif args.command == 'export':
            console.export(args.output, challenge_id=args.challenge)
        elif args.command == 'delete':
            console.interactive_delete()
    except DatasprintError as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())

"""
Terminal client for the Code Review API.

Usage:
    python client.py register <username> <email>
    python client.py login <email>
    python client.py logout
    python client.py whoami
    python client.py submit <file> [--language python]
    python client.py history
    python client.py show <review_id>
"""

import argparse
import getpass
import sys
from pathlib import Path

from app import config
from app.client.api import ApiError, ReviewApiClient
from app.client.render import format_history, format_report
from app.client.session import Session

EXTENSION_LANGUAGES = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".java": "java",
    ".go": "go",
    ".rs": "rust",
    ".cpp": "cpp",
    ".c": "c",
    ".cs": "csharp",
    ".rb": "ruby",
    ".php": "php",
}


def detect_language(path: Path) -> str:
    return EXTENSION_LANGUAGES.get(path.suffix.lower(), "")


def cmd_register(client, args):
    password = getpass.getpass("Password: ")
    user = client.register(args.username, args.email, password)
    print(f"Registered and logged in as {user['username']}")


def cmd_login(client, args):
    password = getpass.getpass("Password: ")
    user = client.login(args.email, password)
    print(f"Logged in as {user['username']}")


def cmd_logout(client, args):
    client.logout()
    print("Logged out")


def cmd_whoami(client, args):
    user = client.me()
    print(f"{user['username']} <{user['email']}>")


def cmd_submit(client, args):
    path = Path(args.file)
    try:
        code = path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        raise ApiError(0, f"{path} is not UTF-8 text")
    language = args.language or detect_language(path)
    if not language:
        raise ApiError(400, "Could not detect the language, pass --language")

    print("Processing request...")
    result = client.submit_review(code, language)
    if result.get("reviewId"):
        print(f"Review saved: {result['reviewId']}\n")
    else:
        print(f"{result.get('message', 'Review was not saved.')}\n")
    print(format_report(result["reviewReport"]), end="")


def cmd_history(client, args):
    print(format_history(client.history()), end="")


def cmd_show(client, args):
    review = client.get_review(args.review_id)
    print(f"{review['submissionDate']}  [{review['language']}]\n")
    print(format_report(review["reviewReport"]), end="")


def main(argv=None):
    """Parse the command and run it"""
    parser = argparse.ArgumentParser(description="Code Review API client")
    parser.add_argument("--api-url", default=config.CLIENT_API_URL, help="Base URL of the API")
    parser.add_argument("--session-file", default=None, help="Where the login is stored")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("register", help="Create an account")
    p.add_argument("username")
    p.add_argument("email")
    p.set_defaults(func=cmd_register)

    p = sub.add_parser("login", help="Log in")
    p.add_argument("email")
    p.set_defaults(func=cmd_login)

    sub.add_parser("logout", help="Forget the stored login").set_defaults(func=cmd_logout)
    sub.add_parser("whoami", help="Show the logged-in user").set_defaults(func=cmd_whoami)

    p = sub.add_parser("submit", help="Submit a file for review")
    p.add_argument("file")
    p.add_argument("--language", default=None)
    p.set_defaults(func=cmd_submit)

    sub.add_parser("history", help="List past reviews").set_defaults(func=cmd_history)

    p = sub.add_parser("show", help="Show one review")
    p.add_argument("review_id")
    p.set_defaults(func=cmd_show)

    args = parser.parse_args(argv)

    session = Session(Path(args.session_file) if args.session_file else None).load()
    client = ReviewApiClient(session, base_url=args.api_url)

    try:
        args.func(client, args)
    except ApiError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

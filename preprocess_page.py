"""Legacy CLI wrapper for the page preprocessor."""

import sys

from page_preprocessor.runner import cli


def run() -> None:
    if len(sys.argv) < 2:
        print("Usage: python3 preprocess_page.py <image_path> [<image_path> ...] -o <output_dir> [options]")
        print()
        print("Arguments:")
        print("  image_path       Path to a source page image file (e.g., page.jpg)")
        print("  -o output_dir    Directory where processed pages will be saved")
        print()
        print("Run with --help for the full list of options.")
        sys.exit(1)
    sys.exit(cli(sys.argv[1:]))


if __name__ == "__main__":
    run()

# (c) Copyright Datacraft, 2026
import os

import uvicorn

from .main import create_app


def main():
	uvicorn.run(
		create_app(),
		host=os.environ.get("DEFINVOICE_HOST", "127.0.0.1"),
		port=int(os.environ.get("DEFINVOICE_PORT", "5001")),
	)


if __name__ == "__main__":
	main()

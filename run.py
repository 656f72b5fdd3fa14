import dotenv

dotenv.load_dotenv()

from streamgate.main import main  # noqa: E402

if __name__ == "__main__":
    main()

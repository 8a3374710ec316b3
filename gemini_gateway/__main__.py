from .main import main

if __name__ == "__main__":
    # Run the OpenAI-compatible gateway (HOST/PORT from environment, default 0.0.0.0:8081)
    main()

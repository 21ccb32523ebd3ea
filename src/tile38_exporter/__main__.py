from tile38_exporter.cli.serve import main

if __name__ == "__main__":
    main()

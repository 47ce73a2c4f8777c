from commitwatch.cli import main

main()

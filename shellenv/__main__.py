from shellenv.cli import main

main()

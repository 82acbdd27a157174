from jkl_core.cli import main

main()

from crococart.cli import main

main()

from stdiogate.cli import main

main()

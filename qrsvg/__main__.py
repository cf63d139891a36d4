from qrsvg.cli import main

main()

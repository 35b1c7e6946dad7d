from rollupnet.cli.main import main

main()

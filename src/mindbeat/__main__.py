from mindbeat.cli import main

main()

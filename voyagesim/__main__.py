from voyagesim.cli import main

main()

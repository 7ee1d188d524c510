from tasktracker.app import main

main()

from pi.dash.main import main

main()

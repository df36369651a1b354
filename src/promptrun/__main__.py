from promptrun.serve.server import main

main()

from mcpr.cli import main

main(prog_name="mcpr")

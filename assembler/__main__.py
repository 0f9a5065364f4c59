from assembler.pipeline import main

main()

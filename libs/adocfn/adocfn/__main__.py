from knfn.runtime import run_function


def main():
    run_function("adocfn.functions", "asciidoc_to_html")


if __name__ == "__main__":
    main()

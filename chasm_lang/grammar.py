SEXP_GRAMMAR = r"""
    start: item*

    ?item: list
         | atom

    list: LPAR item* RPAR

    atom: STRING
        | CHAR
        | NUMBER
        | SYMBOL

    // --- TOKENS ---
    LPAR: "("
    RPAR: ")"
    STRING: /"(\\.|[^"\\])*"/s
    CHAR: /'(\\.|[^'\\])*'/s
    NUMBER: /[-0-9][-0-9eEfF.]*(Infinity)?/
    SYMBOL: /[^ \n()"'\-0-9][^ \n()"]*/

    %ignore /[ \n]+/
"""

import argparse
from .byte_level_bpe import ByteLevelBPETokenizer

def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--vocab-dir", default="vocab_files")
    ap.add_argument("--text", required=True)
    args = ap.parse_args()

    tok = ByteLevelBPETokenizer(args.vocab_dir)
    tokens = tok.tokenize(args.text)
    ids = tok.tokens_to_ids(tokens)
    print(f"tokens: {tokens}")
    print(f"ids:    {ids}")
    print(f"text:   {tok.untokenize(ids)} (vocab={tok.vocab_size})")

if __name__ == "__main__":
    main()

import argparse, logging, sys
from .config import QuestionAnsweringConfig
from .vision.cifar_models import MODEL_NAMES as CIFAR_MODELS

MODEL_NAMES = ["mnist", "fashion-mnist", "fgsm", "fashion-fgsm", *CIFAR_MODELS, "text", "seq2seq", "qa-train", "qa-infer"]

def build_parser():
    ap = argparse.ArgumentParser(prog="torchexamples", description="Train and evaluate the example models.")
    ap.add_argument("models", nargs="*", metavar="model-name", help=", ".join(MODEL_NAMES))
    ap.add_argument("--epochs", type=int, default=16)
    ap.add_argument("--timeout", type=int, default=3600, help="seconds; checked after every epoch")
    ap.add_argument("--logdir", default=None, help="tensorboard log directory")
    ap.add_argument("--data-dir", default="data")
    ap.add_argument("--qa-config", default=None, help="JSON file overriding QuestionAnsweringConfig")
    return ap

def run_model(name, args):
    name = name.lower()
    common = dict(epochs=args.epochs, timeout=args.timeout, logdir=args.logdir, data_dir=args.data_dir)
    if name in ("mnist", "fashion-mnist"):
        from .training import mnist
        mnist.run(dataset=name, **common)
    elif name in ("fgsm", "fashion-fgsm"):
        from .training import fgsm
        fgsm.run(dataset=name, **common)
    elif name in CIFAR_MODELS:
        from .training import cifar10
        cifar10.run(model_name=name, **common)
    elif name == "text":
        from .training import text_classification
        text_classification.run(**common)
    elif name == "seq2seq":
        from .training import seq2seq
        seq2seq.run(**common)
    elif name in ("qa-train", "qa-infer"):
        config = QuestionAnsweringConfig.from_json(args.qa_config) if args.qa_config else QuestionAnsweringConfig()
        if name == "qa-train":
            from .training import qa_finetune
            qa_finetune.run(config)
        else:
            from .inference import qa
            qa.run(config)
    else:
        print(f"Unknown model name: {name}", file=sys.stderr)
        return False
    return True

def main(argv=None):
    ap = build_parser()
    args = ap.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s %(levelname)s: %(message)s")
    if not args.models:
        ap.print_usage()
        return 1
    ok = [run_model(name, args) for name in args.models]
    return 0 if all(ok) else 1

if __name__ == "__main__":
    sys.exit(main())

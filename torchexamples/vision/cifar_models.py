from torchvision import models
from .alexnet import AlexNet

_TORCHVISION = {
    "mobilenet": models.mobilenet_v2,
    "resnet18": models.resnet18,
    "resnet34": models.resnet34,
    "resnet50": models.resnet50,
    "resnet101": models.resnet101,
    "resnet152": models.resnet152,
    "vgg11": models.vgg11,
    "vgg13": models.vgg13,
    "vgg16": models.vgg16,
    "vgg19": models.vgg19,
}

MODEL_NAMES = ["alexnet"] + list(_TORCHVISION)

def build_model(name, num_classes=10):
    name = name.lower()
    if name == "alexnet":
        return AlexNet(num_classes)
    if name not in _TORCHVISION:
        raise ValueError(f"Unknown model name: {name}")
    return _TORCHVISION[name](weights=None, num_classes=num_classes)

from app.schemas.canvas import (
    AgentNodeData,
    BrandKitNodeData,
    CanvasEdge,
    CanvasNode,
    CanvasState,
    ProductNodeData,
)
from app.schemas.common import ColorPalette, Position, Viewport

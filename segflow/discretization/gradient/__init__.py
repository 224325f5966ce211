from .gauss import compute_cell_gradients, corrected_face_gradient, uncorrected_face_gradient

__all__ = ["compute_cell_gradients", "corrected_face_gradient", "uncorrected_face_gradient"]
